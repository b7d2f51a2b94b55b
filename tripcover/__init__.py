"""Travel insurance booking backend on top of the Assistcard API."""
