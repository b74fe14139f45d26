"""Output formats used by the analyses: text tables and streaming JSON."""