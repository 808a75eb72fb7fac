"""Service layer: business operations over repositories and domain helpers."""
