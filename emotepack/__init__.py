"""
Emote pack builder: turns a guild's custom emoji into a chat add-on zip.

Modules:
- core: pipeline orchestration
- templates: template tree loading & validation
- markers: script marker insertion and manifest title patching
- paths: pack naming, path sanitising & remapping
- transcode: emote download, resize & TGA encoding
- archive: in-memory zip assembly
- delivery: request handling against a chat transport
"""
