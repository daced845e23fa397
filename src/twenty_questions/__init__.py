"""
Twenty Questions package.

Components:
- game: round orchestration (setup -> game -> ended) and the answer/guess loop
- oracle_client: single-shot chat requests against the relay endpoint
- relay: Flask blueprint that forwards chat requests to the provider with the server-side key
- prompting/normalizer: prompt templates and free-text reply interpretation
- themes/scores/state: theme gates, persisted score record, round state types
"""
# Package exports are intentionally minimal; import modules directly as needed.
