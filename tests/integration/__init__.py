"""
Integration tests that spawn real encoder processes.

These tests:
- Put a stand-in kram script on PATH (POSIX only)
- Or use an installed kram when KTXIFY_REAL_KRAM=1

Run with:
    pytest tests/integration/ -v
"""
