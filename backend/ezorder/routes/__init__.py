# Overview: HTTP blueprints.
