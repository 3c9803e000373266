"""IoT hub portal core: twin mapping and LoRaWAN telemetry ingestion."""
