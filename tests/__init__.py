"""module-foundry test suite.

- unit/: one file per library module, backends against moto or fakes
- integration/: full publish runs against the local and S3 backends
"""
