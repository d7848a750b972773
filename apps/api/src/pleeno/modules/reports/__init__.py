"""Reports module - Payment plan and commission reports with CSV/PDF export."""
