"""
SceneReel Services

- credentials: credential gate and API key selection
- video_generation: single-job Veo generation controller and collaborators
"""
