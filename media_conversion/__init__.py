"""Convert documents, images and audio to plain text."""
