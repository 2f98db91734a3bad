"""ConfSys — conference paper submission and review workflow service."""
