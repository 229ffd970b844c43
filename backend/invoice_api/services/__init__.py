"""Service layer: quota, OCR, structuring, storage and persistence."""
