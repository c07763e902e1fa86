_version_ = "0.1.0"
