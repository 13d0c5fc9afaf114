"""Protocol implementations"""
