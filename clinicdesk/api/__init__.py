"""HTTP layer: request/response models, dependencies and table definitions."""
