"""Multi-language code chunking: language detection, structural parsing and chunking strategies."""
