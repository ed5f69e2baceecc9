"""
Services module for the explorer.

Contains:
- html_sanitizer: markup cleaning and text extraction
- link_extractor: frontier candidates from listing and detail pages
- product_extractor: product draft from a detail page
- gazetteer / region_mapping / reference_data: country reference data
- country_resolver: strategy cascade resolving a product's origin
- completion_clients: text completion providers
- text_merge / code_blocks: generated-text stitching and JSON extraction
- compression: gzip + base64 codec
- record_store: product persistence
- disambiguation: operator callback
- exploration_orchestrator: the per-page crawl loop
"""
