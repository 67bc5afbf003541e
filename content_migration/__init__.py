"""
Content Migration

A batch toolkit for moving a legacy CMS installation (WordPress-style
relational schema) into the destination site database.

Stages:
- Extraction of published content, accounts and media into dated snapshot files
- Transformation of snapshots onto the destination model via declarative mappings
- Idempotent import with account identifier remapping
- Orchestration with skippable stages, dry runs and a consolidated report
"""

__version__ = "0.1.0"
