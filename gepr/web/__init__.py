"""Web API for training and scoring models."""
