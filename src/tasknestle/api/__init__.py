"""HTTP layer for TaskNestle."""
