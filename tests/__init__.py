"""
AI Paste - Unit Tests Package

Test Coverage:
- OCR providers and dispatcher (with a fake HTTP session)
- Clipboard snapshots, writes and the watch loop
- Screen capture helpers, including multi-monitor regions
- Settings and Word markup
- Application start-up and OCR result handling

Run tests with:
    pytest -v --cov=ai_paste
"""
