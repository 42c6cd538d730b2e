"""Terminal user interface: home and sync views, actions and components."""