"""Domain logic kept free of HTTP concerns: derived post fields, toggles, background view counts, avatar storage."""
