"""Integration adapters: Telethon transport and Tesseract OCR."""
