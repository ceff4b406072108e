"""Reference persistence for keys, journal entries and audit records."""
