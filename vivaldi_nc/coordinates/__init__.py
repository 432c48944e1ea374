from .coordinate_engine import NetworkCoordinateEngine as NetworkCoordinateEngine
