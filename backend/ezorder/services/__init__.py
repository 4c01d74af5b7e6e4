# Overview: Service layer package; business logic behind the HTTP routes and CLI.
