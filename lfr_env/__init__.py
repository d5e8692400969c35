"""Line-following robot simulator and tile track generator."""
