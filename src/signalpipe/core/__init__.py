"""Core domain: models, ports, logger, flush scheduler and metrics."""
