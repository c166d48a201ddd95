"""Database repositories for the job engine and the business tables it touches."""
