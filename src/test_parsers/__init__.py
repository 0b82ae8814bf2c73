"""Tree-sitter based unit-test discovery for Python, TypeScript, Go and Java."""
