"""FX rate service: periodic rate refresh and cross-rate conversion."""
