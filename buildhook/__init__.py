"""buildhook — build status cards for chat webhooks."""
