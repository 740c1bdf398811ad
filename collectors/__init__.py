"""
GitHub collectors for the Awesome List Ranker.

- github: repository lookups with quota-aware retries and batching
- retry_strategy: retry policy and response classification
- readme_links: awesome-list detection and link extraction
"""

__version__ = "0.1.0"
