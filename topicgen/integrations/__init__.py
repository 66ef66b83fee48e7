# External service integrations
