"""Prompt templates, request builders and response parsers for each pipeline stage."""
