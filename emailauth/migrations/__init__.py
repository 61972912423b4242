"""SQL migrations applied in filename order by run_migrations()."""
