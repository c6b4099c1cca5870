"""Pure domain core: value objects, DTOs, cost policies and the clock abstraction."""
