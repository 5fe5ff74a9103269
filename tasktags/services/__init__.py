"""Business services: tag store, task-tag links, filter engine, task and user managers."""
