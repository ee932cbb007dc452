"""
Betfeed services.

- feed: upstream client and manual ingestion
- sync: normalizer, result extractor, finishing sweep and orchestrator
- booking: bet slip booking and storage
"""
