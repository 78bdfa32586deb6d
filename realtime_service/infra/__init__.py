"""Infrastructure: realtime transport, logging and metrics."""
