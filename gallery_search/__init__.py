"""Image gallery backend: describe uploads with a vision model, embed the
descriptions and search them by free text through Milvus."""
