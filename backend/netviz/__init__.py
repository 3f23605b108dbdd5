"""Interactive node-link diagrams built from delimited relational tables."""
