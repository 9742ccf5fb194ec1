"""Service layer: business rules for links, verification, contracts and upkeep."""
