"""
Shared test fixtures for docmap.

- models: mapped entities covering aliases, marked ids and non-string keys
- repositories: repository classes declaring derived query methods
- cosmos: async iterables standing in for azure-cosmos query pagers
"""
