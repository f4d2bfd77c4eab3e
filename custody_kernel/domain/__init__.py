"""Pure domain layer: value objects, state tables and predicates.  ZERO I/O."""
