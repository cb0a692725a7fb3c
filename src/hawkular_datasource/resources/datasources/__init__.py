"""Sample data source catalogues."""
