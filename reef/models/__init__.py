"""Plain data types shared across the reader."""
