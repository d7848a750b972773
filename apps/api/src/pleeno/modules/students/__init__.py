"""
Students Module

Students placed by the agency, with:
- Notes (author or admin may edit/delete)
- Uploaded documents (pdf, jpeg, png)
- CSV import with per-row error reporting
- Payment history across all their plans, exportable as CSV or PDF
"""
