"""Gateway services: admission, summarization and the request pipeline."""
