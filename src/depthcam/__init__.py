"""
DepthCam - Depth Sensor Network Camera

Sensor: depth camera with color/infrared/depth streams, tilt motor and mic array
Features: auto day/night live view, depth motion captures, MJPEG streaming
"""

__version__ = "1.0.0"
__author__ = "DepthCam Team"
