"""
Feed sync layer.

- normalizer: upstream payload -> NormalizedEvent
- result_extractor: finished payload -> result type and winning values
- finishing_sweep: late keno results
- orchestrator: per-game interval jobs and control operations
"""
